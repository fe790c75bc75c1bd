from pickbook.booking.draft import SelectCourt, ToggleDate, ToggleSlot
from pickbook.booking.flow import BookingFlow, BookingValidationError
from pickbook.booking.models import AreaSummary, ContactDetails, DashboardBooking, Notification
from pickbook.flows.areas import rate_range, search_areas, sort_by_distance
from pickbook.flows.booking import pending_text, pretty_date, summary_text, validation_text
from pickbook.flows.dashboard import booking_details_text, notifications_text
from pickbook.i18n.loader import t, t_all, user_lang


def summary(area_id, name, lat, lng, low=500, high=500):
    return AreaSummary.model_validate({
        "id": area_id,
        "areaName": name,
        "lat": lat,
        "lng": lng,
        "details": {"courtCount": 2, "minRate": low, "maxRate": high},
    })


def test_catalogue_lookup_and_fallbacks():
    assert t("booking:form:total", "en", "₱2,700") == "💰 <b>Total: ₱2,700</b>"
    assert t("booking:form:total", "xx", "₱1") == "💰 <b>Total: ₱1</b>"
    assert t("no:such:key", "en") == "no:such:key"
    assert user_lang("en-US") == "en"
    assert user_lang("tl") == "en"
    assert t_all("menu:areas") == [t("menu:areas", "en")]


def test_search_areas_is_case_insensitive_substring():
    areas = [summary("a1", "Sunrise Pickleball", 14.5, 121.0), summary("a2", "BGC Courts", 14.55, 121.05)]

    assert [a.id for a in search_areas(areas, "  pICKle ")] == ["a1"]
    assert len(search_areas(areas, "")) == 2


def test_sort_by_distance():
    near = summary("near", "Near", 14.55, 121.02)
    far = summary("far", "Far", 10.3, 123.9)

    ranked = sort_by_distance([far, near], (14.5547, 121.0244))

    assert [a.id for a, _ in ranked] == ["near", "far"]
    assert ranked[0][1] < 1000


def test_rate_range():
    assert rate_range(summary("a", "A", 0, 0, 400, 600)) == "₱400–₱600"
    assert rate_range(summary("a", "A", 0, 0)) == "₱500"


def test_validation_text_lists_dates_and_fields():
    dates = BookingValidationError("booking:err_empty_dates", dates=["2024-12-20"])
    fields = BookingValidationError("booking:err_contact", fields=["email", "gcash_number"])

    assert pretty_date("2024-12-20") == "Fri, 20 Dec 2024"
    assert "Fri, 20 Dec 2024" in validation_text(dates, "en")
    assert "E-mail, GCash number" in validation_text(fields, "en")


def test_summary_and_pending_texts(area, now):
    flow = BookingFlow(area, contact=ContactDetails(
        first_name="Juan", last_name="Dela Cruz", email="juan@example.com", gcash_number="9171234567",
    ))
    for action in (SelectCourt("c1"), ToggleDate("2024-12-21"), ToggleSlot("2024-12-21", "08:00 AM - 09:00 AM")):
        flow.dispatch(action, now)
    flow.error = "Slot <taken>"

    text = summary_text(flow, "en")

    assert "1 × ₱500 = ₱500" in text
    assert "Total: ₱500" in text
    assert "Slot &lt;taken&gt;" in text

    flow.booking_id = "bk-1"
    pending = pending_text(flow, "en")
    assert "bk-1" in pending
    assert "Ana Cruz" in pending
    assert "09171234567" in pending


def test_dashboard_texts():
    booking = DashboardBooking.model_validate({
        "id": "b1",
        "areaName": "Sunrise",
        "courtName": "Court 1",
        "isApproved": False,
        "amount": 1500,
        "slots": [{"date": "2024-12-21", "time": ["08:00 AM - 09:00 AM", "09:00 AM - 10:00 AM"]}],
        "createdAt": "2024-12-20T08:30:00Z",
    })

    details = booking_details_text(booking, "en")

    assert "❌ Rejected" in details
    assert "Hours: 2" in details
    assert "₱1,500" in details
    assert "20 Dec 2024, 08:30" in details

    items = [Notification(id="n1", title="Confirmed", read=False), Notification(id="n2", title="Hi", read=True)]
    assert "(2, 1 unread)" in notifications_text(items, "en")
    assert notifications_text([], "en") == t("dash:notif:empty", "en")
