import os
import sys

# ecosystem_main.py lives at the repository root, next to the ecosystem package
repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if repo_root not in sys.path:
    sys.path.insert(0, repo_root)
