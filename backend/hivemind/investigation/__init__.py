"""Investigation lifecycle, timeline and graph ownership."""
