import json
import logging

import pytest

import bc_getedinburgh as edi
from bc_errors import SCRAPE_FAILED, SECTION_EXTRACTION_FAILED, ScraperError, TransportError
from fakes import RoutedTransport

KEY = "T1A67ZEWK0T00"


def tab(name):
    return edi.build_tab_url(KEY, name)


SUMMARY = """
<table>
  <tr><th>Reference:</th><td>25/01234/WARR</td></tr>
  <tr><th>Case Officer:</th><td>-</td></tr>
  <tr><th>Status:</th><td>Under Consideration</td></tr>
</table>
"""
PLOTS = """
<table><caption>Plots</caption>
  <tr><th>Plot Number</th><th>Plot Status</th></tr>
  <tr><td>Plot 1</td><td>Work Commenced</td></tr>
  <tr><td>Plot 2</td><td>Work Pending</td></tr>
</table>
"""
DATES = "<table><tr><th>Application Received:</th><td>01/02/2025</td></tr></table>"
NO_CERTS = "<p>There are no design certificates for this application.</p>"
CONSTRUCTION = """
<table><tr><td>Certificate Reference</td><td>C-1</td></tr><tr><td>Date Received:</td><td>02/03/2025</td></tr></table>
"""
RELATED = """
<a href="/idoxpa-web/propertyDetails.do?keyVal=P1">1 High Street, Edinburgh</a>
<a href="/idoxpa-web/applicationDetails.do?type=Planning&amp;keyVal=A1">25/00001/FUL</a>
"""
GEOMETRY = {
    "features": [{"geometry": {"rings": [[[0, 0], [2, 0], [2, 2], [0, 2]]]}}],
    "spatialReference": {"wkid": 4326},
}


def routes(**overrides):
    r = {
        tab("summary"): SUMMARY,
        tab("details"): TransportError("navigation timeout"),
        tab("plots"): PLOTS,
        tab("dates"): DATES,
        tab("designCertificate"): NO_CERTS,
        tab("constructCertificate"): CONSTRUCTION,
        tab("energyCertificate"): "<html></html>",
        tab("completionCertificate"): "<html></html>",
        tab("relatedCases"): RELATED,
    }
    r.update(overrides)
    return r


def test_tab_url():
    assert tab("plots") == (
        "https://citydev-portal.edinburgh.gov.uk/idoxpa-web/scottishBuildingWarrantDetails.do"
        "?keyVal=T1A67ZEWK0T00&activeTab=plots"
    )


def test_scrape_tabs_with_one_failing_tab():
    browser = RoutedTransport(routes())
    geo = RoutedTransport({edi.build_geometry_url(KEY): json.dumps(GEOMETRY)})
    doc = edi.scrape_edinburgh(KEY, transport=browser, geometry_transport=geo)

    assert doc["metadata"]["identifier"] == KEY
    assert doc["metadata"]["source_url"] == tab("summary")
    assert doc["summary"] == {"reference": "25/01234/WARR", "status": "Under Consideration"}
    assert doc["details"] is None
    assert doc["metadata"]["warnings"] == [
        {"section": "details", "code": SECTION_EXTRACTION_FAILED, "message": "navigation timeout"}
    ]
    assert doc["plots"] == [
        {"plotNumber": "Plot 1", "plotStatus": "Work Commenced"},
        {"plotNumber": "Plot 2", "plotStatus": "Work Pending"},
    ]
    assert doc["dates"] == {"applicationReceived": "01/02/2025"}
    assert doc["certificates"] == {
        "design": None,
        "construction": [{"certificateReference": "C-1", "dateReceived": "02/03/2025"}],
        "energy": None,
        "completion": None,
    }
    related = doc["related_items"]
    assert related["properties"] == [
        {
            "address": "1 High Street, Edinburgh",
            "url": "https://citydev-portal.edinburgh.gov.uk/idoxpa-web/propertyDetails.do?keyVal=P1",
        }
    ]
    assert related["planning_applications"][0]["reference"] == "25/00001/FUL"
    assert doc["geometry"]["centroid"] == [1.0, 1.0]
    assert doc["geometry"]["spatial_reference"] == {"wkid": 4326}
    assert doc["metadata"]["validation"]["is_valid"] is True
    assert doc["metadata"]["validation"]["warnings"] == ["details: navigation timeout"]


def test_tabs_navigated_in_portal_order():
    browser = RoutedTransport(routes())
    edi.scrape_edinburgh(KEY, transport=browser, include_geometry=False)
    assert browser.calls == [s.url for s in edi.edinburgh_sections(KEY)]
    assert browser.kwargs[0] == {"wait_until": "networkidle", "wait_for": "th"}
    assert browser.kwargs[2] == {"wait_until": "domcontentloaded", "wait_for": "table"}


def test_plots_fall_back_to_label_pairs():
    html = "<table><tr><td>Plot</td><td>1</td></tr><tr><td>Plot Status</td><td>Complete</td></tr></table>"
    assert edi.extract_plots(html) == [{"plot": "1", "plotStatus": "Complete"}]
    assert edi.extract_plots("<p>none</p>") == []


def test_missing_summary_is_invalid():
    browser = RoutedTransport(routes(**{tab("summary"): "<p>Loading…</p>"}))
    doc = edi.scrape_edinburgh(KEY, transport=browser, include_geometry=False)
    assert doc["summary"] is None
    assert doc["geometry"] is None
    assert doc["metadata"]["validation"]["is_valid"] is False


def test_geometry_failures_give_none():
    assert edi.fetch_geometry(KEY, RoutedTransport({}), logging.getLogger("t")) is None
    bad_json = RoutedTransport({edi.build_geometry_url(KEY): "<html>oops</html>"})
    assert edi.fetch_geometry(KEY, bad_json, logging.getLogger("t")) is None
    assert edi.parse_geometry({"features": []}) is None
    assert edi.parse_geometry({"features": [{"geometry": {}}]}) is None


def test_geometry_url_filters_by_key():
    url = edi.build_geometry_url(KEY)
    assert url.startswith(edi.EDINBURGH_FEATURE_SERVER + "?f=json")
    assert "KEYVAL%20IN%20%28%27T1A67ZEWK0T00%27%29" in url
    assert "returnGeometry=true" in url


def test_ring_centroid():
    assert edi.ring_centroid([[0, 0], [4, 0], [4, 2]]) == [8 / 3, 2 / 3]
    assert edi.ring_centroid([]) is None


def test_run_scraper_writes_json(tmp_path):
    meta = edi.run_scraper(
        KEY,
        artifacts_root=tmp_path,
        transport=RoutedTransport(routes()),
        geometry_transport=RoutedTransport({}),
    )
    out = tmp_path / "json" / f"edinburgh-{KEY}.json"
    assert meta["output_path"] == str(out)
    assert json.loads(out.read_text(encoding="utf-8"))["summary"]["status"] == "Under Consideration"


def test_related_links_relative_to_the_tab():
    html = '<a href="propertyDetails.do?keyVal=P1">1 High Street</a>'
    browser = RoutedTransport(routes(**{tab("relatedCases"): html}))
    doc = edi.scrape_edinburgh(KEY, transport=browser, include_geometry=False)
    assert doc["related_items"]["properties"][0]["url"] == (
        "https://citydev-portal.edinburgh.gov.uk/idoxpa-web/propertyDetails.do?keyVal=P1"
    )
    assert edi.extract_related(html)["properties"][0]["url"].startswith(edi.EDINBURGH_BASE + "/")


def test_browser_start_failure_is_wrapped(monkeypatch):
    class NoBrowser:
        def __init__(self, *args, **kwargs):
            raise RuntimeError("Playwright not available")

    monkeypatch.setattr(edi, "BrowserTransport", NoBrowser)
    with pytest.raises(ScraperError) as excinfo:
        edi.scrape_edinburgh(KEY, include_geometry=False)
    assert excinfo.value.code == SCRAPE_FAILED
    assert excinfo.value.details == {"identifier": KEY, "original_error": "Playwright not available"}


def test_transports_opened_here_are_closed_on_failure(monkeypatch):
    opened = []

    class ClosingTransport(RoutedTransport):
        def __init__(self, *args, **kwargs):
            super().__init__(routes())
            opened.append(self)

    def broken(*args, **kwargs):
        raise KeyError("certificates")

    monkeypatch.setattr(edi, "BrowserTransport", ClosingTransport)
    monkeypatch.setattr(edi, "HttpTransport", ClosingTransport)
    monkeypatch.setattr(edi, "group_sections", broken)
    with pytest.raises(ScraperError) as excinfo:
        edi.scrape_edinburgh(KEY)
    assert excinfo.value.code == SCRAPE_FAILED
    assert len(opened) == 2 and all(t.closed for t in opened)


def test_unwritable_artifacts_root_is_a_coded_error(tmp_path):
    blocker = tmp_path / "artifacts"
    blocker.write_text("not a directory", encoding="utf-8")
    with pytest.raises(ScraperError) as excinfo:
        edi.run_scraper(KEY, artifacts_root=blocker, transport=RoutedTransport(routes()),
                        geometry_transport=RoutedTransport({}))
    assert excinfo.value.code == SCRAPE_FAILED
    assert excinfo.value.details["identifier"] == KEY
