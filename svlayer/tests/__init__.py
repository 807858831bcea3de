"""
Test suite for the `svlayer` package.

This package contains unit and integration tests for `svlayer` functionality, including:

- `crs` tests: projection round trips and zoom validation.
- `core` tests: fetching, region planning, compositing, cancellation and cropping.
- `layer` tests: the create_tile / unload_tile lifecycle seen by a host.
- `providers` tests: panorama lookups with mocked provider responses.
- `server` tests: the aiohttp tile and panorama routes.
- Helpers in `helpers.py` for in-memory images and a scripted HTTP session.

Usage:

    # Run all tests in the package
    pytest svlayer/tests

    # Run a specific test file
    pytest svlayer/tests/test_core.py
"""
