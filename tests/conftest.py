"""
Pytest 配置：项目根目录加入导入路径，并提供示例文档目录。
"""
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


@pytest.fixture
def samples_dir() -> Path:
    return PROJECT_ROOT / "samples"
