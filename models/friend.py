from typing import List, Optional

from pydantic import BaseModel

from models.proposal import Proposal
from models.user import User


class FriendRequest(Proposal):
    # Counterpart as embedded by the backend in received/sent listings
    user: Optional[User] = None


class FriendLists(BaseModel):
    friends: List[User] = []
    received: List[FriendRequest] = []
    sent: List[FriendRequest] = []
