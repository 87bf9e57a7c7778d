import base64
import json

import pytest

from chromeservice.models import (
    AvailableTemplates,
    AvailableWidgets,
    BaseDashboardTemplate,
    BaseWidgetDimensions,
    DashboardTemplate,
    DashboardTemplateBase,
    FavoritePage,
    GridItem,
    GridSizes,
    ModuleFederationMetadata,
    SelfReport,
    TemplateConfig,
    UserIdentity,
    ValidationError,
    VisitedPage,
    WidgetConfiguration,
    WidgetHeaderLink,
    WidgetIcons,
    WidgetPermission,
    WidgetPermissionMethods,
    decode_dashboard_base64,
    grid_max_width,
    validate_grid_size,
    validate_template_name,
    validate_widget_icon,
    validate_widget_name,
)


def _item(**overrides):
    values = dict(id="rhel#rhel", width=1, height=4, max_height=10, min_height=1)
    values.update(overrides)
    return GridItem(**values)


def _template(**overrides):
    config = TemplateConfig(sm=[_item()], xl=[_item(id="edge#edge", x=3, y=2)])
    values = dict(
        template_base=DashboardTemplateBase(name="landingPage", display_name="Landing"),
        template_config=config,
    )
    values.update(overrides)
    return DashboardTemplate(**values)


def test_template_name_validation():
    assert validate_template_name("landingPage") is AvailableTemplates.LANDING_PAGE
    with pytest.raises(ValidationError, match="invalid dashboard template"):
        validate_template_name("nope")


@pytest.mark.parametrize("widget", list(AvailableWidgets))
def test_every_widget_is_valid(widget):
    assert validate_widget_name(widget.value) is widget


def test_invalid_widget_message_lists_options():
    with pytest.raises(ValidationError, match=r"invalid widget\. Expected one of \[favoriteServices"):
        validate_widget_name("bogus")


def test_widget_icons():
    assert [validate_widget_icon(i.value) for i in WidgetIcons] == list(WidgetIcons)
    with pytest.raises(ValidationError, match="invalid widget icon"):
        validate_widget_icon("bogus")


def test_grid_sizes_and_widths():
    assert [grid_max_width(s) for s in ("sm", "md", "lg", "xl")] == [1, 2, 3, 4]
    assert validate_grid_size("lg") is GridSizes.LG
    with pytest.raises(ValidationError, match="invalid grid size"):
        grid_max_width("xs")


def test_dimensions_create():
    dims = BaseWidgetDimensions.create(1, 4, 10, 1)
    assert dims.to_dict() == {"w": 1, "h": 4, "maxH": 10, "minH": 1}
    with pytest.raises(ValidationError, match="greater than 0"):
        BaseWidgetDimensions.create(0, 4, 10, 1)


@pytest.mark.parametrize(
    "item, variant, message",
    [
        (_item(id=""), "sm", 'field id "i" is required'),
        (_item(min_height=0), "sm", "must be greater than 0"),
        (_item(height=11), "sm", 'max height "maxH"'),
        (_item(height=1, min_height=2), "sm", 'min height "minH"'),
        (_item(width=2), "sm", "width must be less than or equal"),
        (_item(x=2), "sm", "coordinate X must be less than"),
        (_item(), "xs", "invalid grid size"),
    ],
)
def test_grid_item_errors(item, variant, message):
    with pytest.raises(ValidationError, match=message):
        item.validate(variant)


def test_grid_item_fits_wider_variant_only():
    item = _item(width=3, x=4)
    with pytest.raises(ValidationError):
        item.validate("lg")
    assert item.validate("xl") is None


def test_grid_item_round_trip():
    item = _item(x=1, y=2, title="Title", static=True)
    data = item.to_dict()
    assert data["i"] == "rhel#rhel"
    assert data["maxH"] == 10
    assert GridItem.from_dict(data) == item


def test_grid_item_rejects_wrong_types():
    with pytest.raises(ValidationError):
        GridItem.from_dict({"i": "a", "w": "wide"})
    with pytest.raises(ValidationError):
        GridItem.from_dict(["not", "a", "map"])


def test_template_config_items_and_round_trip():
    config = TemplateConfig()
    config.set_items("md", [_item()])
    assert config.items_for(GridSizes.MD) == [_item()]
    assert config.items_for("sm") == []
    data = config.to_dict()
    assert list(data) == ["sm", "md", "lg", "xl"]
    assert TemplateConfig.from_dict(data) == config


def test_template_config_validate_reports_bad_variant():
    config = TemplateConfig(lg=[_item(width=4)])
    with pytest.raises(ValidationError, match="layout variant lg"):
        config.validate()


def test_template_config_missing_sizes_are_empty():
    config = TemplateConfig.from_dict({"sm": None})
    assert config == TemplateConfig()


def test_dashboard_template_validation():
    with pytest.raises(ValidationError, match="invalid template name"):
        _template(template_base=DashboardTemplateBase()).validate()
    with pytest.raises(ValidationError, match="invalid template display name"):
        _template(template_base=DashboardTemplateBase(name="landingPage")).validate()


def test_dashboard_template_to_dict_uses_capitalised_base_key():
    data = _template(user_identity_id=3, default=True).to_dict()
    assert data["TemplateBase"] == {"name": "landingPage", "displayName": "Landing"}
    assert data["userIdentityID"] == 3
    assert DashboardTemplate.from_dict(data) == _template(user_identity_id=3, default=True)


def test_encode_decode_strips_user_data():
    template = _template(id=7, user_identity_id=5, default=True)
    encoded = template.encode_base64()
    decoded = decode_dashboard_base64(encoded)
    assert decoded.template_base == template.template_base
    assert decoded.template_config == template.template_config
    assert decoded.id == 0
    assert decoded.user_identity_id == 0
    assert decoded.default is False


def test_encoded_payload_is_json_line():
    encoded = _template(user_identity_id=5).encode_base64()
    raw = base64.b64decode(encoded).decode("utf-8")
    assert raw.endswith("\n")
    assert json.loads(raw) == _template().to_dict()


def test_encode_invalid_template_raises():
    with pytest.raises(ValidationError):
        _template(template_base=DashboardTemplateBase()).encode_base64()


def test_decode_rejects_garbage_and_invalid():
    with pytest.raises(ValidationError):
        decode_dashboard_base64("!!!not-base64!!!")
    invalid = base64.b64encode(json.dumps({"templateConfig": {}}).encode()).decode()
    with pytest.raises(ValidationError, match="invalid template name"):
        decode_dashboard_base64(invalid)


def test_base_dashboard_template_round_trip():
    base = BaseDashboardTemplate(
        name="landingPage", display_name="Landing", template_config=TemplateConfig(sm=[_item()])
    )
    assert BaseDashboardTemplate.from_dict(base.to_dict()) == base


def test_module_federation_metadata_omits_empty_fields():
    meta = ModuleFederationMetadata(
        scope="landing",
        module="./RhelWidget",
        defaults=BaseWidgetDimensions.create(1, 4, 10, 1),
        config=WidgetConfiguration(title="Red Hat Enterprise Linux", icon=WidgetIcons.RHEL_ICON),
    )
    data = meta.to_dict()
    assert "importName" not in data
    assert data["config"] == {
        "title": "Red Hat Enterprise Linux",
        "icon": "RhelIcon",
        "headerLink": {},
    }


def test_widget_permission_and_header_link():
    perm = WidgetPermission(method=WidgetPermissionMethods.ORG_ADMIN)
    assert perm.to_dict() == {"method": "isOrgAdmin"}
    link = WidgetHeaderLink(title="View all services", href="/allservices")
    assert link.to_dict() == {"title": "View all services", "href": "/allservices"}


def test_visited_and_favorite_round_trip():
    page = VisitedPage(bundle="insights", pathname="insights/first", title="Advisor")
    assert VisitedPage.from_dict(page.to_dict()) == page
    fav = FavoritePage(id=2, pathname="/settings", favorite=True, user_identity_id=1)
    assert FavoritePage.from_dict(fav.to_dict()) == fav


def test_self_report_round_trip_and_errors():
    report = SelfReport(products_of_interest=["rhel"], job_role="admin", user_identity_id=4)
    assert SelfReport.from_dict(report.to_dict()) == report
    with pytest.raises(ValidationError):
        SelfReport.from_dict({"productsOfInterest": [1]})


def test_user_identity_to_dict_omits_empty_values():
    user = UserIdentity()
    data = user.to_dict()
    assert "accountId" not in data
    assert "visitedBundles" not in data
    assert "dashboardTemplates" not in data
    filled = UserIdentity(account_id="1", visited_bundles={})
    filled_data = filled.to_dict()
    assert filled_data["accountId"] == "1"
    assert filled_data["visitedBundles"] == {}