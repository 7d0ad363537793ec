"""Block, annotation, table and property processors."""
