# tests/conftest.py
import sys, os
# Add project root to sys.path so `baby_sim` and `cli` are importable without installing
ROOT = os.path.dirname(os.path.dirname(__file__))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
