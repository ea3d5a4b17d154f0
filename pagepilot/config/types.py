from typing import Any, Optional
from pydantic import BaseModel


class SettingDescriptor(BaseModel):
    """Model describing one configurable setting"""

    name: str
    default_value: Optional[Any] = None
    type: str
    env_var: str
