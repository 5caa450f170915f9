from dataclasses import dataclass
from typing import Dict, Optional


@dataclass
class SessionContext:
    token: Optional[str] = None
    user_id: Optional[str] = None

    def auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}
