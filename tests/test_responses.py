from chromeservice.models import FavoritePage, VisitedPage
from chromeservice.responses import (
    EntityResponse,
    ErrorResponse,
    ListMeta,
    ListResponse,
    NotAuthorizedError,
    RecordNotFoundError,
    to_json,
)


def test_list_meta_omits_zero_fields():
    assert ListMeta(count=2, total=2).to_dict() == {"count": 2, "total": 2}
    assert ListMeta().to_dict() == {}


def test_list_response_serialises_models():
    page = VisitedPage(bundle="insights", pathname="insights/first", title="Advisor")
    resp = ListResponse(data=[page], meta=ListMeta(count=1))
    assert resp.to_dict() == {
        "data": [{"bundle": "insights", "pathname": "insights/first", "title": "Advisor"}],
        "meta": {"count": 1},
    }


def test_list_response_none_data_is_null():
    assert ListResponse(data=None).to_dict()["data"] is None


def test_entity_response_wraps_model():
    page = FavoritePage(pathname="/a", favorite=True, user_identity_id=3)
    assert EntityResponse(data=page).to_dict() == {"data": page.to_dict()}


def test_entity_response_plain_value():
    assert EntityResponse(data="encoded").to_dict() == {"data": "encoded"}


def test_error_response():
    assert ErrorResponse(errors=["boom"]).to_dict() == {"errors": ["boom"]}


def test_to_json_nested_containers():
    page = VisitedPage(bundle="b", pathname="p", title="t")
    assert to_json({"k": [page]}) == {"k": [page.to_dict()]}


def test_not_authorized_message():
    assert str(NotAuthorizedError()) == "not authorized"


def test_record_not_found_is_lookup_error():
    error = RecordNotFoundError()
    assert str(error) == "record not found"
    assert issubclass(RecordNotFoundError, LookupError)