"""CensusApiClient against a stubbed requests session."""

import json

import numpy as np
import pytest
import requests

from acspipe.census import CachedCatalog, CensusApiClient
from acspipe.census.client import MAX_FIELDS_PER_REQUEST, moe_code_for
from acspipe.contracts import FetchError

from tests.helpers.fake_client import FakeCensusClient

pytestmark = pytest.mark.unit


class StubResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else json.dumps(payload)

    def json(self):
        if self._payload is None:
            raise ValueError("no JSON")
        return self._payload


class StubSession:
    """Replays queued responses (or raises queued exceptions) and records calls."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []
        self.headers = {}

    def get(self, url, params=None, timeout=None):
        self.calls.append({"url": url, "params": dict(params or {}), "timeout": timeout})
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def make_client(responses, **kwargs):
    session = StubSession(responses)
    sleeps = []
    client = CensusApiClient(session=session, sleeper=sleeps.append, **kwargs)
    return client, session, sleeps


TRACT_PAYLOAD = [
    ["NAME", "B25070_001E", "B25070_001M", "B25070_010E", "B25070_010M", "state", "county", "tract"],
    ["Census Tract 4001", "614", "80", "126", "40", "06", "001", "400100"],
    ["Census Tract 4002", "0", "-555555555", "-666666666", "-222222222", "06", "001", "400200"],
]


class TestObservations:

    def test_long_frame_with_geoid_and_sentinels(self):
        client, session, _ = make_client([StubResponse(payload=TRACT_PAYLOAD)])
        obs = client.fetch_observations(2022, "acs/acs5", ["B25070_001E", "B25070_010E"],
                                        geography="tract", state="06", county="001")

        assert list(obs.columns) == ["GEOID", "NAME", "variable", "estimate", "moe"]
        assert len(obs) == 4
        assert set(obs["GEOID"]) == {"06001400100", "06001400200"}

        first = obs[(obs["GEOID"] == "06001400100") & (obs["variable"] == "B25070_001E")].iloc[0]
        assert first["estimate"] == 614
        assert first["moe"] == 80

        second = obs[(obs["GEOID"] == "06001400200") & (obs["variable"] == "B25070_010E")].iloc[0]
        assert np.isnan(second["estimate"])
        assert np.isnan(second["moe"])

    def test_request_parameters(self):
        client, session, _ = make_client([StubResponse(payload=TRACT_PAYLOAD)], api_key="secret")
        client.fetch_observations(2022, "acs/acs5", ["B25070_001E", "B25070_010E"],
                                  geography="tract", state="06", county="001")

        call = session.calls[0]
        assert call["url"] == "https://api.census.gov/data/2022/acs/acs5"
        assert call["params"]["get"] == "NAME,B25070_001E,B25070_001M,B25070_010E,B25070_010M"
        assert call["params"]["for"] == "tract:*"
        assert call["params"]["in"] == "state:06 county:001"
        assert call["params"]["key"] == "secret"

    def test_county_geography_clause(self):
        params = CensusApiClient._geography_params("county", "06", None)
        assert params == {"for": "county:*", "in": "state:06"}

    def test_long_variable_lists_are_chunked(self):
        codes = [f"B01001_{i:03d}E" for i in range(1, 41)]
        per_chunk = (MAX_FIELDS_PER_REQUEST - 1) // 2

        def payload(chunk):
            header = ["NAME"] + [f for c in chunk for f in (c, moe_code_for(c))] + ["state"]
            row = ["California"] + ["1"] * (2 * len(chunk)) + ["06"]
            return [header, row]

        chunks = [codes[:per_chunk], codes[per_chunk:]]
        client, session, _ = make_client([StubResponse(payload=payload(c)) for c in chunks])
        obs = client.fetch_observations(2022, "acs/acs5", codes, geography="state", state="06")

        assert len(session.calls) == 2
        for call in session.calls:
            assert len(call["params"]["get"].split(",")) <= MAX_FIELDS_PER_REQUEST
        assert sorted(obs["variable"].unique()) == sorted(codes)
        assert set(obs["GEOID"]) == {"06"}

    def test_geometry_request_is_refused(self):
        client, session, _ = make_client([])
        with pytest.raises(FetchError, match="geometry"):
            client.fetch_observations(2022, "acs/acs5", ["B25070_001E"], geography="tract",
                                      include_geometry=True)
        assert session.calls == []

    def test_missing_requested_field(self):
        payload = [["NAME", "B25070_001E", "state"], ["California", "5", "06"]]
        client, _, _ = make_client([StubResponse(payload=payload)])
        with pytest.raises(FetchError, match="lacks requested fields"):
            client.fetch_observations(2022, "acs/acs5", ["B25070_001E", "B25070_010E"],
                                      geography="state")


class TestRetries:

    def test_retries_transient_status_then_succeeds(self):
        client, session, sleeps = make_client(
            [StubResponse(503, text="busy"), StubResponse(429, text="slow down"),
             StubResponse(payload=TRACT_PAYLOAD)],
            retries=3, backoff=2.0,
        )
        obs = client.fetch_observations(2022, "acs/acs5", ["B25070_001E", "B25070_010E"],
                                        geography="tract", state="06", county="001")
        assert len(session.calls) == 3
        assert sleeps == [1.0, 2.0]
        assert len(obs) == 4

    def test_client_error_is_not_retried(self):
        client, session, sleeps = make_client([StubResponse(400, text="unknown variable")])
        with pytest.raises(FetchError, match="HTTP 400"):
            client.fetch_catalog(2022, "acs/acs5")
        assert len(session.calls) == 1
        assert sleeps == []

    def test_transport_errors_exhaust_retries(self):
        errors = [requests.ConnectionError("reset")] * 3
        client, session, sleeps = make_client(errors, retries=3)
        with pytest.raises(FetchError, match="after 3 attempts"):
            client.fetch_catalog(2022, "acs/acs5")
        assert len(sleeps) == 2

    def test_api_key_is_redacted_from_errors(self):
        body = "invalid key=secret-key-123"
        client, _, _ = make_client([StubResponse(403, text=body)], api_key="secret-key-123")
        with pytest.raises(FetchError) as exc:
            client.fetch_catalog(2022, "acs/acs5")
        assert "secret-key-123" not in str(exc.value)
        assert "***CENSUS_API_KEY***" in str(exc.value)

    def test_malformed_json(self):
        client, _, _ = make_client([StubResponse(200, payload=None, text="<html>")])
        with pytest.raises(FetchError, match="malformed JSON"):
            client.fetch_catalog(2022, "acs/acs5")


class TestCatalog:

    def test_catalog_frame(self):
        payload = {"variables": {
            "for": {"label": "Census API FIPS 'for' clause"},
            "NAME": {"label": "Geographic Area Name"},
            "B25070_010E": {"label": "Estimate!!Total:!!50.0 percent or more",
                            "concept": "Gross Rent as a Percentage of Household Income in the Past 12 Months",
                            "group": "B25070"},
            "B25070_001E": {"label": "Estimate!!Total:",
                            "concept": "Gross Rent as a Percentage of Household Income in the Past 12 Months",
                            "group": "B25070"},
        }}
        client, session, _ = make_client([StubResponse(payload=payload)])
        catalog = client.fetch_catalog(2022, "acs/acs5")

        assert session.calls[0]["url"] == "https://api.census.gov/data/2022/acs/acs5/variables.json"
        assert catalog["code"].tolist() == ["B25070_001E", "B25070_010E"]
        assert set(catalog.columns) >= {"code", "concept", "label", "year", "dataset"}
        assert (catalog["year"] == 2022).all()

    def test_catalog_without_variables(self):
        client, _, _ = make_client([StubResponse(payload={"oops": {}})])
        with pytest.raises(FetchError, match="no 'variables'"):
            client.fetch_catalog(2022, "acs/acs5")


class TestCachedCatalog:

    def test_catalog_fetched_once_per_year_and_dataset(self):
        fake = FakeCensusClient({})
        cached = CachedCatalog(fake)

        first = cached.fetch_catalog(2019, "acs/acs5")
        second = cached.fetch_catalog(2019, "acs/acs5")
        cached.fetch_catalog(2022, "acs/acs5")

        assert first is second
        assert fake.catalog_calls == [(2019, "acs/acs5"), (2022, "acs/acs5")]
        assert cached.cached_keys() == [(2019, "acs/acs5"), (2022, "acs/acs5")]

    def test_observations_pass_through(self):
        fake = FakeCensusClient({2019: [("06001400100", 10, 1)]})
        cached = CachedCatalog(fake)
        cached.fetch_observations(2019, "acs/acs5", ["B25070_001E"], "tract")
        cached.fetch_observations(2019, "acs/acs5", ["B25070_001E"], "tract")
        assert len(fake.observation_calls) == 2


def test_moe_code_for():
    assert moe_code_for("B25070_001E") == "B25070_001M"
    assert moe_code_for("NAME") is None
