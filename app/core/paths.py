from app.schemas.retro import EntityKind

ROOT = "boards"


def board_path(board_id: str) -> str:
    return f"{ROOT}/{board_id}"


def settings_path(board_id: str, field: str = "") -> str:
    base = f"{board_path(board_id)}/settings"
    return f"{base}/{field}" if field else base


def column_path(board_id: str, column_id: str) -> str:
    return f"{board_path(board_id)}/columns/{column_id}"


def entity_path(board_id: str, column_id: str, kind: EntityKind, entity_id: str) -> str:
    return f"{column_path(board_id, column_id)}/{kind.value}/{entity_id}"


def card_path(board_id: str, column_id: str, card_id: str) -> str:
    return entity_path(board_id, column_id, EntityKind.CARD, card_id)


def group_path(board_id: str, column_id: str, group_id: str) -> str:
    return entity_path(board_id, column_id, EntityKind.GROUP, group_id)


def split(path: str) -> list:
    return [segment for segment in path.split("/") if segment]


def related(a: str, b: str) -> bool:
    """True when one path is equal to, or nested under, the other."""
    return a == b or a.startswith(b + "/") or b.startswith(a + "/")
