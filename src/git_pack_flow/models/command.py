"""Commands decoded from the command line."""

from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel


class SaveCommand(BaseModel):
    """Export the current branch into ``output_dir``."""

    output_dir: Path
    trunk: Optional[str] = None

    model_config = {"frozen": True}


class LoadCommand(BaseModel):
    """Import ``artifact`` and merge it into its target branch."""

    artifact: Path
    verify_signatures: Optional[bool] = None

    model_config = {"frozen": True}


Command = Union[SaveCommand, LoadCommand]
