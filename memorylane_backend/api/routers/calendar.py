from collections import defaultdict
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from ...date_utils import get_calendar_days, get_relative_time_string, has_memory_on_day
from ...entities import User, utcnow
from ...storage import IStorage
from ..deps import get_current_user, get_storage
from ..schemas import CalendarDayOut

router = APIRouter()


# PUBLIC_INTERFACE
@router.get("/calendar", response_model=List[CalendarDayOut], summary="Month grid of memories")
def month_calendar(
    day: Optional[date] = Query(None, description="Any day in the target month (defaults to today)"),
    storage: IStorage = Depends(get_storage),
    current_user: User = Depends(get_current_user),
):
    """
    The 42-cell Sunday-first grid for the month containing ``day``, with the
    ids of the caller's accessible memories that fall on each cell.
    """
    now = utcnow()
    target = day or now.date()
    memories = storage.get_accessible_memories(current_user.id)
    memory_dates = [m.date for m in memories]
    by_day = defaultdict(list)
    for memory in memories:
        by_day[memory.date.date()].append(memory.id)

    return [
        CalendarDayOut(
            date=cell,
            in_month=(cell.year, cell.month) == (target.year, target.month),
            has_memory=has_memory_on_day(memory_dates, cell),
            memory_ids=by_day.get(cell, []),
            label=get_relative_time_string(cell, now),
        )
        for cell in get_calendar_days(target)
    ]
