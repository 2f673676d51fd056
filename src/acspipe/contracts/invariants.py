"""Formal pipeline invariants.

This file documents what each stage MUST produce. Use it as a reviewer
anchor and system reference.
"""

PIPELINE_INVARIANTS = {
    "select": [
        "One variable code per predicate, in predicate-declaration order",
        "Zero or multiple catalog matches raise ConfigurationError",
        "Catalog is never modified",
    ],

    "normalize": [
        "Exactly one row per distinct geography id of the input",
        "Row order follows first appearance of each geography id",
        "Every requested variable is present as a role-named column",
        "Geometry (when present) is attached once per geography",
    ],

    "derive": [
        "Ratio column exists",
        "ratio == numerator / denominator when denominator > 0",
        "Zero denominators handled by exactly one policy per run",
        "NaN ratio only under 'mark_undefined' and only where denominator == 0",
        "Excluded geography ids are reported, never silently dropped",
    ],

    "aggregate": [
        "Every record carries the dimension value that produced it",
        "Groups follow dimension-value submission order",
        "First failing dimension value aborts the run",
    ],

    "categorize": [
        "Thresholds strictly increasing, last bound inclusive",
        "Every record receives exactly one category",
        "Out-of-range and undefined ratios get the out-of-range category",
    ],
}

# Which stages are optional vs required
STAGE_REQUIREMENTS = {
    "select": "REQUIRED",
    "fetch": "REQUIRED",
    "normalize": "REQUIRED",
    "derive": "REQUIRED",
    "aggregate": "REQUIRED",
    "categorize": "OPTIONAL",  # Only when a summary is requested
}
