"""
Unit Tests for pagination and DataTables helpers
"""
from urllib.parse import urlencode

from sqlalchemy import select
from starlette.requests import Request

from app.models.catalog import Rate
from app.utils.pagination import (
    paginate,
    parse_datatables_params,
    datatables_query,
    datatables_response,
    DataTablesParams,
)


def make_request(params: dict) -> Request:
    return Request({
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [],
        "query_string": urlencode(params).encode(),
    })


async def add_rates(db_session, names):
    db_session.add_all([Rate(name=name) for name in names])
    await db_session.commit()


class TestParseDataTablesParams:

    def test_defaults(self):
        params = parse_datatables_params(make_request({}))

        assert params == DataTablesParams()
        assert params.descending is False

    def test_reads_bracketed_keys(self):
        params = parse_datatables_params(make_request({
            "draw": "3",
            "start": "20",
            "length": "10",
            "search[value]": "  van ",
            "order[0][column]": "2",
            "order[0][dir]": "DESC",
        }))

        assert params.draw == 3
        assert params.start == 20
        assert params.length == 10
        assert params.search == "van"
        assert params.order_column == 2
        assert params.descending is True

    def test_clamps_values(self):
        params = parse_datatables_params(make_request({"start": "-5", "length": "1000"}))

        assert params.start == 0
        assert params.length == 100

        assert parse_datatables_params(make_request({"length": "0"})).length == 1

    def test_garbage_falls_back_to_defaults(self):
        params = parse_datatables_params(make_request({
            "draw": "x", "length": "many", "order[0][column]": "name", "order[0][dir]": "sideways",
        }))

        assert params.draw == 1
        assert params.length == 25
        assert params.order_column is None
        assert params.order_dir == "asc"

    def test_extra_keys_become_filters(self):
        params = parse_datatables_params(make_request({
            "status": "sent",
            "columns[0][data]": "name",
            "_": "1700000000",
        }))

        assert params.filters == {"status": "sent"}


class TestDataTablesQuery:

    async def test_counts_and_orders(self, db_session):
        await add_rates(db_session, ["Premium", "Económica", "Ejecutiva"])
        base = select(Rate)
        query = base.where(Rate.name.ilike("%e%"))
        params = DataTablesParams(draw=7, order_column=0, order_dir="desc")

        listing = await datatables_query(db_session, query, params, base, sortable_columns=[Rate.name])

        assert listing["draw"] == 7
        assert listing["recordsTotal"] == 3
        assert listing["recordsFiltered"] == 3
        names = [rate.name for rate in listing["items"]]
        assert names == sorted(names, reverse=True)

    async def test_slices_with_start_and_length(self, db_session):
        await add_rates(db_session, ["A", "B", "C", "D"])
        base = select(Rate)
        params = DataTablesParams(start=1, length=2)

        listing = await datatables_query(
            db_session, base, params, base, sortable_columns=[Rate.name], default_order=Rate.name.asc()
        )

        assert [rate.name for rate in listing["items"]] == ["B", "C"]

    async def test_out_of_range_column_uses_default_order(self, db_session):
        await add_rates(db_session, ["B", "A"])
        base = select(Rate)
        params = DataTablesParams(order_column=9)

        listing = await datatables_query(
            db_session, base, params, base, sortable_columns=[Rate.name], default_order=Rate.name.asc()
        )

        assert [rate.name for rate in listing["items"]] == ["A", "B"]

    def test_response_envelope(self):
        params = DataTablesParams(draw=2)
        listing = {"recordsTotal": 5, "recordsFiltered": 1, "items": []}

        assert datatables_response(params, listing, [{"id": "1"}]) == {
            "success": True,
            "draw": 2,
            "recordsTotal": 5,
            "recordsFiltered": 1,
            "data": [{"id": "1"}],
        }


class TestPaginate:

    async def test_pages(self, db_session):
        await add_rates(db_session, [f"Rate {i:02d}" for i in range(5)])

        result = await paginate(db_session, select(Rate).order_by(Rate.name), page=2, page_size=2)

        assert [rate.name for rate in result["items"]] == ["Rate 02", "Rate 03"]
        assert result["total"] == 5
        assert result["total_pages"] == 3
        assert result["has_next"] is True
        assert result["has_previous"] is True

    async def test_empty(self, db_session):
        result = await paginate(db_session, select(Rate), page=1, page_size=10)

        assert result["items"] == []
        assert result["total_pages"] == 1
        assert result["has_next"] is False
