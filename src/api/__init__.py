"""Local HTTP surface for comic conversions."""
