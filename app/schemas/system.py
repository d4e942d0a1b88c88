from pydantic import BaseModel

class SystemStats(BaseModel):
    boards: int
    owners: int
