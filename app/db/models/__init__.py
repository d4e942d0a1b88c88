from app.db.models.board import BoardRecord

__all__ = ["BoardRecord"]
