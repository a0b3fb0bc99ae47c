import pytest
from app.core.pagination import PageDTO


@pytest.mark.parametrize(
    "total, page_size, expected_pages",
    [
        (0, 10, 1),
        (10, 10, 1),
        (1, 10, 1),
        (0, 0, 1),
        (11, 10, 2),
        (20, 10, 2),
        (5, 2, 3),
        (100, -5, 1)
    ]
)
def test_pages_calculation(total, page_size, expected_pages):
    dto = PageDTO(items=[], total=total, page=1, page_size=page_size)
    assert dto.pages == expected_pages


@pytest.mark.parametrize(
    "total, page_size, page, expected_has_next",
    [
        (0, 10, 1, False),
        (10, 10, 1, False),
        (11, 10, 1, True),
        (11, 10, 2, False),
        (21, 10, 1, True),
        (21, 10, 3, False),
        (21, 0, 1, False),
        (21, 10, 5, False),
    ]
)
def test_has_next(total, page_size, page, expected_has_next):
    dto = PageDTO(items=[], total=total, page=page, page_size=page_size)
    assert dto.has_next == expected_has_next


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "page, page_size, expected_limit, expected_offset",
    [
        (1, 20, 20, 0),
        (3, 10, 10, 20),
        (0, 10, 10, 0),
        (2, 1000, 200, 200),
    ]
)
async def test_paginate_clamps_and_offsets(mocker, page, page_size, expected_limit, expected_offset):
    from sqlalchemy import select
    from app.core.pagination import paginate
    from app.domain.invoicing.models import Invoice

    db = mocker.Mock()
    db.scalar = mocker.AsyncMock(return_value=None)
    scalars = mocker.Mock()
    scalars.all.return_value = ["a", "b"]
    db.scalars = mocker.AsyncMock(return_value=scalars)

    items, total = await paginate(db, select(Invoice), page=page, page_size=page_size)

    assert items == ["a", "b"]
    assert total == 0
    stmt = db.scalars.await_args.args[0]
    assert stmt._limit_clause.value == expected_limit
    assert stmt._offset_clause.value == expected_offset
