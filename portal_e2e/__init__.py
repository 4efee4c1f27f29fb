"""End-to-end suite for the multi-tenant portal: fixtures, store verification and cleanup."""
