"""Census Data API access: variable catalogs and long-form observations.

The pipeline core only depends on the ``CensusClient`` protocol. The
``CensusApiClient`` below is the concrete HTTPS implementation against
``https://api.census.gov/data``; ``CachedCatalog`` wraps any client and keeps
catalogs (immutable published facts) for the life of the process.
"""

import logging
import threading
import time
from typing import Optional, Protocol, Sequence

import numpy as np
import pandas as pd
import requests

from acspipe.contracts.failure import FetchError

__all__ = ['CensusClient', 'CensusApiClient', 'CachedCatalog', 'moe_code_for']

logger = logging.getLogger(__name__)

# Census API refuses requests with more than 50 fields.
MAX_FIELDS_PER_REQUEST = 50

RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}

# Official "no data" annotations used in ACS estimate and MOE cells.
ACS_MISSING_SENTINELS = [
    -999999999,
    -888888888,
    -666666666,
    -555555555,
    -333333333,
    -222222222,
]

# Pseudo-variables listed in variables.json that are not measurements.
NON_VARIABLES = {"for", "in", "ucgid", "GEO_ID", "NAME"}


class CensusClient(Protocol):
    """Interface the pipeline expects from the data collaborator."""

    def fetch_catalog(self, year: int, dataset: str) -> pd.DataFrame:
        """Return the variable catalog: columns code, concept, label, year, dataset."""
        ...

    def fetch_observations(self, year: int, dataset: str, variables: Sequence[str],
                           geography: str, state: Optional[str] = None,
                           county: Optional[str] = None,
                           include_geometry: bool = False) -> pd.DataFrame:
        """Return long observations: columns GEOID, variable, estimate, moe."""
        ...


def moe_code_for(code: str) -> Optional[str]:
    """Margin-of-error field paired with an estimate field (B25070_001E -> B25070_001M)."""
    if code.endswith("E"):
        return code[:-1] + "M"
    return None


class CensusApiClient:
    """HTTPS client for the Census Data API.

    Parameters
    ----------
    base_url : str
        API root, normally ``https://api.census.gov/data``.
    api_key : str, optional
        Census API key. Redacted from every log line and error message.
    timeout : float
        Per-request timeout in seconds.
    retries : int
        Attempts per request. 408/429/5xx responses and transport errors are
        retried with exponential backoff; other failures are not.
    backoff : float
        Multiplier applied to the wait between attempts.
    session : requests.Session, optional
        Injected for testing.
    sleeper : callable, optional
        Function to sleep (for testing). If None, uses ``time.sleep``.

    Notes
    -----
    Boundary geometry is not served by the Census Data API. Requesting it
    raises ``FetchError``; attach geometry with a dedicated client.
    """

    def __init__(self, base_url: str = "https://api.census.gov/data",
                 api_key: Optional[str] = None, timeout: float = 30.0,
                 retries: int = 3, backoff: float = 1.7,
                 user_agent: str = "acspipe/0.1",
                 session: Optional[requests.Session] = None, sleeper=None):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.retries = retries
        self.backoff = backoff
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": user_agent})
        self._sleep = sleeper or time.sleep

    @classmethod
    def from_config(cls, config, **kwargs) -> "CensusApiClient":
        """Build from an InternalConfig (uses ``config.api``)."""
        api = config.api
        return cls(
            base_url=api.base_url,
            api_key=api.api_key,
            timeout=api.timeout_sec,
            retries=api.retries,
            backoff=api.backoff,
            user_agent=api.user_agent,
            **kwargs,
        )

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------

    def redact(self, text: str) -> str:
        """Remove the API key from a string before it is logged or raised."""
        if self.api_key:
            return text.replace(self.api_key, "***CENSUS_API_KEY***")
        return text

    def _get_json(self, url: str, params: Optional[dict] = None, key=None):
        """GET ``url`` and decode JSON, retrying transient failures."""
        params = dict(params or {})
        if self.api_key:
            params["key"] = self.api_key

        wait = 1.0
        for attempt in range(1, self.retries + 1):
            try:
                response = self.session.get(url, params=params, timeout=self.timeout)
            except requests.RequestException as exc:
                logger.warning("Request error for %s (attempt %d/%d): %s",
                               url, attempt, self.retries, self.redact(str(exc)))
                if attempt < self.retries:
                    self._sleep(wait)
                    wait *= self.backoff
                    continue
                raise FetchError(
                    f"request failed after {self.retries} attempts: {self.redact(str(exc))}",
                    key=key,
                ) from exc

            if response.status_code == 200:
                try:
                    return response.json()
                except ValueError as exc:
                    raise FetchError(
                        f"malformed JSON from {url}: {self.redact(response.text[:200])}",
                        key=key,
                    ) from exc

            body = self.redact(response.text[:500])
            logger.warning("HTTP %d from %s (attempt %d/%d)",
                           response.status_code, url, attempt, self.retries)
            if response.status_code in RETRYABLE_STATUS_CODES and attempt < self.retries:
                self._sleep(wait)
                wait *= self.backoff
                continue
            raise FetchError(f"HTTP {response.status_code} from {url}: {body}", key=key)

        raise FetchError(f"max retries exceeded for {url}", key=key)

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def fetch_catalog(self, year: int, dataset: str) -> pd.DataFrame:
        """Download ``variables.json`` for one year and dataset.

        Returns
        -------
        pd.DataFrame
            Columns ``code``, ``concept``, ``label``, ``group``, ``year``,
            ``dataset``; one row per published variable, sorted by code.
        """
        url = f"{self.base_url}/{year}/{dataset}/variables.json"
        payload = self._get_json(url, key=f"{year}/{dataset}")
        if not isinstance(payload, dict) or "variables" not in payload:
            raise FetchError(f"catalog payload has no 'variables' for {year}/{dataset}")

        rows = []
        for code, meta in payload["variables"].items():
            if code in NON_VARIABLES:
                continue
            rows.append({
                "code": code,
                "concept": meta.get("concept", ""),
                "label": meta.get("label", ""),
                "group": meta.get("group", ""),
            })

        catalog = pd.DataFrame(rows, columns=["code", "concept", "label", "group"])
        catalog = catalog.sort_values("code", ignore_index=True)
        catalog["year"] = year
        catalog["dataset"] = dataset
        logger.info("Catalog %s/%s: %d variables", year, dataset, len(catalog))
        return catalog

    # ------------------------------------------------------------------
    # Observations
    # ------------------------------------------------------------------

    @staticmethod
    def _geography_params(geography: str, state: Optional[str],
                          county: Optional[str]) -> dict:
        """Build the ``for``/``in`` clauses of a data request."""
        if geography == "state":
            return {"for": f"state:{state or '*'}"}
        if geography == "county":
            params = {"for": f"county:{county or '*'}"}
            if state:
                params["in"] = f"state:{state}"
            return params

        params = {"for": f"{geography}:*"}
        within = []
        if state:
            within.append(f"state:{state}")
        if county:
            within.append(f"county:{county}")
        if within:
            params["in"] = " ".join(within)
        return params

    def fetch_observations(self, year: int, dataset: str, variables: Sequence[str],
                           geography: str, state: Optional[str] = None,
                           county: Optional[str] = None,
                           include_geometry: bool = False) -> pd.DataFrame:
        """Fetch estimates and margins of error in long form.

        Long variable lists are split into several requests so no request
        exceeds the API field limit; the partial results are concatenated.

        Returns
        -------
        pd.DataFrame
            Columns ``GEOID``, ``NAME``, ``variable``, ``estimate``, ``moe``.
            Sentinel "no data" values are NaN.

        Raises
        ------
        FetchError
            On HTTP or payload failure, or when geometry is requested.
        """
        if include_geometry:
            raise FetchError(
                "the Census Data API does not serve boundary geometry; "
                "use a geometry-capable client",
                key=geography,
            )
        if not variables:
            raise FetchError("no variables requested", key=f"{year}/{dataset}")

        url = f"{self.base_url}/{year}/{dataset}"
        geo_params = self._geography_params(geography, state, county)

        # Each estimate travels with its MOE field; NAME rides along once.
        per_chunk = max(1, (MAX_FIELDS_PER_REQUEST - 1) // 2)
        frames = []
        for start in range(0, len(variables), per_chunk):
            chunk = list(variables[start:start + per_chunk])
            fields = ["NAME"]
            for code in chunk:
                fields.append(code)
                moe = moe_code_for(code)
                if moe:
                    fields.append(moe)
            params = {"get": ",".join(fields), **geo_params}
            logger.debug("Fetching %d fields for %s %s", len(fields), geography, geo_params)
            payload = self._get_json(url, params=params, key=f"{year}/{dataset}")
            frames.append(self._to_long(payload, chunk, key=f"{year}/{dataset}"))

        long_df = pd.concat(frames, ignore_index=True)
        logger.info("Fetched %d observations (%d variables) for %s in %s",
                    len(long_df), len(variables), geography, year)
        return long_df

    @staticmethod
    def _to_long(payload, codes: Sequence[str], key=None) -> pd.DataFrame:
        """Reshape the API's header+rows array into long observations."""
        if not isinstance(payload, list) or len(payload) < 1:
            raise FetchError("data payload is not a header+rows array", key=key)

        header, rows = payload[0], payload[1:]
        wide = pd.DataFrame(rows, columns=header)
        missing = [code for code in codes if code not in wide.columns]
        if missing:
            raise FetchError(f"response lacks requested fields {missing}", key=key)

        requested = set(codes) | {moe_code_for(c) for c in codes} | {"NAME"}
        geo_parts = [col for col in header if col not in requested]
        if not geo_parts:
            raise FetchError("response carries no geography columns", key=key)
        if wide.empty:
            geoid = pd.Series([], dtype=object)
        else:
            geoid = wide[geo_parts].astype(str).agg("".join, axis=1)

        frames = []
        for code in codes:
            estimate = pd.to_numeric(wide[code], errors="coerce")
            moe_col = moe_code_for(code)
            if moe_col and moe_col in wide.columns:
                moe = pd.to_numeric(wide[moe_col], errors="coerce")
            else:
                moe = pd.Series(np.nan, index=wide.index)
            frames.append(pd.DataFrame({
                "GEOID": geoid,
                "NAME": wide["NAME"] if "NAME" in wide.columns else "",
                "variable": code,
                "estimate": estimate.replace(ACS_MISSING_SENTINELS, np.nan),
                "moe": moe.replace(ACS_MISSING_SENTINELS, np.nan),
            }))
        return pd.concat(frames, ignore_index=True)


class CachedCatalog:
    """Catalog cache in front of any ``CensusClient``.

    Catalogs are immutable historical facts keyed by ``(year, dataset)``;
    they are cached indefinitely and never invalidated. Observation fetches
    pass straight through.

    Thread-safe: concurrent dimension passes share one instance.
    """

    def __init__(self, client: CensusClient):
        self.client = client
        self._catalogs: dict = {}
        self._lock = threading.Lock()

    def fetch_catalog(self, year: int, dataset: str) -> pd.DataFrame:
        key = (int(year), dataset)
        with self._lock:
            cached = self._catalogs.get(key)
        if cached is not None:
            logger.debug("Catalog cache hit: %s/%s", year, dataset)
            return cached

        catalog = self.client.fetch_catalog(year, dataset)
        with self._lock:
            # Keep the first stored copy if another thread raced us
            return self._catalogs.setdefault(key, catalog)

    def fetch_observations(self, *args, **kwargs) -> pd.DataFrame:
        return self.client.fetch_observations(*args, **kwargs)

    def cached_keys(self) -> list:
        with self._lock:
            return sorted(self._catalogs)
