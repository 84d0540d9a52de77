from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from jobpulse.main import create_app
from jobpulse.settings import PipelineSettings
from pytest_bdd import given, parsers, scenario, then, when

pytestmark = pytest.mark.bdd

HEADERS = {"x-user-id": "bdd-user"}


@scenario("features/jobpulse.feature", "Triggering alerts twice does not duplicate matches")
def test_trigger_is_idempotent() -> None:
    pass


@scenario("features/jobpulse.feature", "Ad-hoc search ranks fresh postings")
def test_search_ranks_postings() -> None:
    pass


@scenario("features/jobpulse.feature", "Ad-hoc search rejects an unknown freshness")
def test_search_rejects_unknown_freshness() -> None:
    pass


@pytest.fixture
def context():
    state: dict[str, object] = {"runs": []}
    yield state
    client = state.get("client")
    if isinstance(client, TestClient):
        client.__exit__(None, None, None)


@given("job boards publishing python and react postings")
def given_job_boards(context, tmp_path, make_listing, static_fetcher) -> None:
    fetchers = {
        "remotive": static_fetcher(
            [
                make_listing("remotive", "1", title="Python Developer"),
                make_listing("remotive", "2", title="Senior Python Engineer"),
            ]
        ),
        "arbeitnow": static_fetcher(
            [make_listing("arbeitnow", "react-dev", title="React Developer", tags=["javascript"])]
        ),
    }
    app = create_app(
        database_path=str(tmp_path / "bdd.sqlite3"),
        settings=PipelineSettings(),
        fetchers=fetchers,
    )
    client = TestClient(app)
    client.__enter__()
    context["client"] = client


@given(parsers.parse('an active alert for "{keyword}" excluding "{excluded}"'))
def given_active_alert(context, keyword: str, excluded: str) -> None:
    response = context["client"].post(
        "/job-alerts",
        json={"name": f"{keyword} alert", "keywords": [keyword], "exclude_keywords": [excluded]},
        headers=HEADERS,
    )
    assert response.status_code == 201


@when("the alerts are triggered")
@when("the alerts are triggered again")
def when_alerts_are_triggered(context) -> None:
    response = context["client"].post("/job-alerts/trigger", headers=HEADERS)
    assert response.status_code == 200
    context["runs"].append(response.json())


@when(parsers.parse('a search for "{keyword}" is requested'), target_fixture="response")
def when_search_is_requested(context, keyword: str):
    return context["client"].post("/job-search", json={"keywords": [keyword]})


@when(parsers.parse('a search with freshness "{freshness}" is requested'), target_fixture="response")
def when_search_with_freshness_is_requested(context, freshness: str):
    return context["client"].post("/job-search", json={"keywords": ["python"], "freshness": freshness})


@then(parsers.parse("the first run saved {count:d} matches"))
def then_first_run_saved(context, count: int) -> None:
    assert context["runs"][0]["alerts"][0]["matches_saved"] == count


@then(parsers.parse("the last run saved {count:d} matches"))
def then_last_run_saved(context, count: int) -> None:
    assert context["runs"][-1]["alerts"][0]["matches_saved"] == count


@then(parsers.parse("the user has {count:d} new job matches"))
def then_user_has_new_matches(context, count: int) -> None:
    body = context["client"].get("/job-listings", headers=HEADERS).json()
    assert body["total"] == count


@then("the search response is successful")
def then_search_is_successful(response) -> None:
    assert response.status_code == 200


@then(parsers.parse('the top search result is "{title}"'))
def then_top_result_matches(response, title: str) -> None:
    assert response.json()["results"][0]["title"] == title


@then("no job matches are stored")
def then_no_matches_stored(context) -> None:
    body = context["client"].get("/job-listings", params={"status": "all"}, headers=HEADERS).json()
    assert body["total"] == 0


@then("the search response has validation errors")
def then_search_has_validation_errors(response) -> None:
    assert response.status_code == 422
