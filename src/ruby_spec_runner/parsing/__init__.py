"""Line-oriented test region detection."""

from ruby_spec_runner.parsing.regions import (
    DEFAULT_MATCHER,
    CompositeLineMatcher,
    LineMatch,
    LineMatcher,
    SpecBlockMatcher,
    TestMethodMatcher,
    TestRegion,
    get_test_regions,
    iter_test_regions,
    strip_title_quotes,
)

__all__ = [
    "DEFAULT_MATCHER",
    "CompositeLineMatcher",
    "LineMatch",
    "LineMatcher",
    "SpecBlockMatcher",
    "TestMethodMatcher",
    "TestRegion",
    "get_test_regions",
    "iter_test_regions",
    "strip_title_quotes",
]
