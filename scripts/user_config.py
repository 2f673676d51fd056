"""ACS Pipeline User Configuration.

This is the user-facing configuration file. Modify settings here to customize
the pipeline behavior. Advanced settings are in acspipe/schemas/param.py

Usage:
    python scripts/run_acs_pipeline.py scripts/user_config.py
    python scripts/run_acs_pipeline.py scripts/user_config.py --years 2018 2023
"""

CONFIG = {
    # ========================================================================
    # DIMENSION (one pass per value; use either YEARS or COUNTIES)
    # ========================================================================
    "YEARS": [2019, 2022],    # ACS 5-year release years
    # "COUNTIES": ["001", "075"],  # With YEAR set, compares counties instead

    # ========================================================================
    # QUERY
    # ========================================================================
    "DATASET": "acs/acs5",
    "GEOGRAPHY": "tract",     # "state", "county" or "tract"
    "STATE": "06",            # California
    "COUNTY": "001",          # Alameda County
    "BASE_DIR": "./output",   # All outputs go here
    # API key is read from $CENSUS_API_KEY unless "API_KEY" is set here

    # ========================================================================
    # METRIC
    # ========================================================================
    # Share of renter households paying 50% or more of income on rent.
    # Tracts with no renter households: "treat_as_zero", "mark_undefined"
    # or "exclude_row". There is no default; it must be chosen here.
    "ZERO_DENOMINATOR_POLICY": "exclude_row",

    # ========================================================================
    # CATEGORIES
    # ========================================================================
    "THRESHOLDS": [
        (0.25, "Less than 25%"),
        (0.50, "25% to 50%"),
        (0.75, "50% to 75%"),
        (1.00, "75% or more"),
    ],
    "DISPLAY_ORDER": ["75% or more", "50% to 75%", "25% to 50%", "Less than 25%"],

    "MAX_WORKERS": 2,         # Concurrent years; keep low for API rate limits
}
