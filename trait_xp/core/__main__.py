"""
特质经验引擎 - 模块入口
python -m trait_xp.core
"""
from .system import main

if __name__ == "__main__":
    main()
