from __future__ import annotations
from pydantic import BaseModel, Field, StrictBool, StrictInt
from typing import Any, Dict, List, Literal, Optional, Tuple, Union
MessageVersion = Literal["v1"]
class BaseMessage(BaseModel):
    v: MessageVersion = "v1"
class StopwatchOptions(BaseMessage):
    ticks: Optional[StrictInt] = Field(default=None, ge=0)
    running: Optional[StrictBool] = None
    resolution: Optional[StrictInt] = Field(default=None, gt=0)
    announcer: Optional[str] = None  # plugin name, e.g. "jsonl"
class ChangeRequest(BaseMessage):
    changes: Union[List[Tuple[str, Any]], Dict[str, Any]]
    path: Optional[str] = None
    context: Optional[Dict[str, Any]] = None
class StopwatchView(BaseMessage):
    id: str
    ticks: int
    resolution: int
    running: bool
    msec: int
class TimeReply(BaseMessage):
    id: str
    ticks: int
class Ack(BaseMessage):
    status: Literal["ok", "accepted", "terminated"] = "ok"
