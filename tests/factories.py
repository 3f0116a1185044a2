"""In-memory model builders for engine tests (no session involved)."""
from kanbanflow.engine.intents import CardAggregate
from kanbanflow.models import Board, BoardList, BoardMember, Card

OWNER = "user_owner"


def headers(user_id: str = OWNER, role: str = "employee") -> dict:
    """Identity headers as the upstream auth layer would set them."""
    return {"X-User-Id": user_id, "X-User-Role": role}


def make_board(stage_types=("todo", "in_progress", "review", "done"), members=()):
    board = Board(
        id="board_1",
        name="Board",
        description="",
        created_by=OWNER,
        total_lists=len(stage_types),
        total_cards=0,
        members=[
            BoardMember(id=f"bm_{user_id}", board_id="board_1", user_id=user_id, role=role, added_at=0)
            for user_id, role in members
        ],
        lists=[],
    )
    titles = {"todo": "To Do", "in_progress": "In Progress", "review": "Review", "done": "Done"}
    for index, list_type in enumerate(stage_types, start=1):
        board.lists.append(
            BoardList(
                id=f"list_{index}",
                board_id=board.id,
                title=titles.get(list_type, list_type),
                position=index,
                list_type=list_type,
                is_archived=False,
                card_limit=None,
                created_by=OWNER,
            )
        )
    return board


def make_card(card_id="card_1", list_id="list_1", position=1, title=None):
    return Card(
        id=card_id,
        board_id="board_1",
        list_id=list_id,
        position=position,
        title=title or card_id,
        description="",
        status="open",
        priority="medium",
        current_stage_index=0,
        is_completed=False,
        created_by=OWNER,
        tasks=[],
        checklist_items=[],
        members=[],
    )


def make_card_aggregate(board=None, card=None, siblings=()):
    """A CardAggregate with ``card`` first in its list, followed by ``siblings``."""
    board = board or make_board()
    card = card or make_card(list_id=board.lists[0].id)
    cards = [card, *siblings]
    for index, c in enumerate(cards, start=1):
        c.position = index
    cards_by_list = {lst.id: [] for lst in board.lists}
    cards_by_list[card.list_id] = cards
    return CardAggregate(board=board, cards_by_list=cards_by_list, card=card)
