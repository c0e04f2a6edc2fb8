from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, NewType, Optional


class PetKind(Enum):
    """Kind of pet."""
    DOG = 2  # dog
    CAT = 1  # cat


Status = NewType("Status", str)

# available for sale
STATUS_AVAILABLE: Status = Status("available")
# already sold
STATUS_SOLD: Status = Status("sold")


@dataclass
class Tag:
    name: str = field(metadata={"json": "name", "validate": "required"})
    children: List["Tag"] = field(default_factory=list, metadata={"json": "children,omitempty"})


@dataclass
class Pet:
    """A pet in the store."""
    # pet identifier
    id: int = field(metadata={"json": "id", "validate": "required"})
    name: str = field(metadata={"json": "name", "validate": "required"})
    kind: PetKind = field(metadata={"json": "kind"})
    created_at: datetime = field(metadata={"json": "createdAt"})
    status: Optional[Status] = field(default=None, metadata={"json": "status,omitempty"})
    tags: List[Tag] = field(default_factory=list, metadata={"json": "tags"})
    _secret: str = ""
