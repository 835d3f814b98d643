import os
from pathlib import Path
from typing import List, Optional
from unittest.mock import patch

from routesync._internal.cli.main import main


def run_routesync_cli(args: List[str], cwd: Optional[Path] = None) -> int:
    exit_code = 0
    if cwd is not None:
        prev_cwd = os.getcwd()
        os.chdir(cwd)
    with patch("sys.argv", ["routesync"] + args):
        try:
            main()
        except SystemExit as e:
            exit_code = e.code
    if cwd is not None:
        os.chdir(prev_cwd)
    return exit_code
