# tools/anomaly_rules.py
def rule_division_by_zero(event):
    return ["div_zero"] if event.get("error_kind") == "arithmetic" else []


def rule_self_jump(event):
    # JMP onto itself never reaches STP
    if event.get("op_name") == "JMP" and event.get("next_pc") == event.get("pc"):
        return ["self_jump"]
    return []


def rule_operand_wrapped(event):
    size = event.get("memory_size")
    addr = event.get("address")
    opr = event.get("operand")
    if size is None or addr is None or opr is None:
        return []
    return ["operand_wrapped"] if (event.get("addr_mode") == "DIRECT" and opr >= size) else []


def rule_pc_out_of_range(event):
    size = event.get("memory_size")
    nxt = event.get("next_pc")
    if size is None or nxt is None or not event.get("running", True):
        return []
    return ["pc_wrap"] if nxt >= size else []


DEFAULT_RULES = (
    rule_division_by_zero,
    rule_self_jump,
    rule_operand_wrapped,
    rule_pc_out_of_range,
)
