import pytest
from core.exceptions import BrowserClosedError, BrowserError, PaginationError
from crawler import portal
from crawler.paginator import ResultPaginator, parse_page_info, parse_rows
from tests.fakes import FakeBrowserSession, no_data_page, result_page


def test_no_data_marker():
    info = parse_page_info("對不起，查無資料", has_next_control=True)
    assert info.no_data is True
    assert info.has_more is False


def test_row_count_and_page_markers():
    info = parse_page_info("共 35 筆 第 2 頁，共 4 頁")
    assert info.total_rows == 35
    assert (info.current_page, info.total_pages) == (2, 4)
    assert info.has_more is True


def test_alternate_markers():
    info = parse_page_info("總數：12 面  1 / 1 頁")
    assert info.total_rows == 12
    assert info.total_pages == 1
    assert info.has_more is False


def test_next_control_overrides_single_page_marker():
    info = parse_page_info("共 40 筆 1 / 1 頁", has_next_control=True)
    assert info.total_pages == 2
    assert info.has_more is True


def test_missing_page_marker_falls_back_to_next_control():
    assert parse_page_info("選號結果", has_next_control=True).has_more is True
    assert parse_page_info("選號結果", has_next_control=False).has_more is False


def test_parse_rows_drops_empty_plate_numbers():
    records = parse_rows([{"no": "ABC-1234", "price": "50,000元"}, {"no": "  ", "price": "1"}])
    assert [(r.plate_no, r.price) for r in records] == [("ABC-1234", 50000)]


@pytest.mark.asyncio
async def test_collect_single_page(pacer):
    session = FakeBrowserSession(result_sets=[[result_page([("ABC-1234", "50000")])]])
    await session.evaluate(portal.SUBMIT_SCRIPT)

    records = await ResultPaginator(pacer).collect(session)

    assert [(r.plate_no, r.price) for r in records] == [("ABC-1234", 50000)]
    assert session.next_clicks == 0


@pytest.mark.asyncio
async def test_collect_follows_next_control(pacer, sleeper):
    pages = [
        result_page([("AAA-0001", "1000"), ("AAA-0002", "2000")], text="共 3 筆 1 / 1 頁", has_next=True),
        result_page([("AAA-0003", "3,000元")], text="共 3 筆 2 / 2 頁"),
    ]
    session = FakeBrowserSession(result_sets=[pages])
    await session.evaluate(portal.SUBMIT_SCRIPT)

    records = await ResultPaginator(pacer).collect(session)

    assert [r.plate_no for r in records] == ["AAA-0001", "AAA-0002", "AAA-0003"]
    assert session.next_clicks == 1
    assert any(1.5 <= s <= 3.0 for s in sleeper.calls)


@pytest.mark.asyncio
async def test_collect_no_data(pacer):
    session = FakeBrowserSession(result_sets=[[no_data_page()]])
    await session.evaluate(portal.SUBMIT_SCRIPT)

    assert await ResultPaginator(pacer).collect(session) == []


@pytest.mark.asyncio
async def test_collect_fails_when_page_limit_reached(pacer):
    looping = result_page([("LOOP-0001", "1")], text="1 / 9 頁", has_next=True)
    session = FakeBrowserSession(result_sets=[[looping]])
    await session.evaluate(portal.SUBMIT_SCRIPT)

    with pytest.raises(PaginationError) as exc_info:
        await ResultPaginator(pacer, max_pages=3).collect(session)

    assert exc_info.value.context["pages_read"] == 3
    assert session.next_clicks == 3


@pytest.mark.asyncio
async def test_collect_fails_when_next_click_fails(pacer):
    pages = [
        result_page([("P1-0001", "1000")], text="共 3 筆 1 / 3 頁", has_next=True),
        result_page([("P2-0001", "1000")], text="共 3 筆 2 / 3 頁", has_next=True),
        result_page([("P3-0001", "1000")], text="共 3 筆 3 / 3 頁"),
    ]
    click_error = BrowserError("Browser click failed")
    session = FakeBrowserSession(result_sets=[pages], next_click_error=click_error)
    await session.evaluate(portal.SUBMIT_SCRIPT)

    with pytest.raises(PaginationError) as exc_info:
        await ResultPaginator(pacer).collect(session)

    assert exc_info.value.original_exception is click_error
    assert exc_info.value.context["pages_read"] == 1
    assert exc_info.value.context["total_pages"] == 3


@pytest.mark.asyncio
async def test_collect_lets_closed_page_through(pacer):
    pages = [result_page([("P1-0001", "1000")], text="1 / 2 頁", has_next=True)]
    session = FakeBrowserSession(
        result_sets=[pages],
        next_click_error=BrowserClosedError("Browser page closed during click")
    )
    await session.evaluate(portal.SUBMIT_SCRIPT)

    with pytest.raises(BrowserClosedError):
        await ResultPaginator(pacer).collect(session)


@pytest.mark.asyncio
async def test_collect_stops_quietly_without_next_control(pacer):
    # Counter says more pages but no control is rendered: a normal end
    page = result_page([("ONLY-0001", "1000")], text="1 / 2 頁")
    session = FakeBrowserSession(result_sets=[[page]])
    await session.evaluate(portal.SUBMIT_SCRIPT)

    records = await ResultPaginator(pacer).collect(session)

    assert [r.plate_no for r in records] == ["ONLY-0001"]
