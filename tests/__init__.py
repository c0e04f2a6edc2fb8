"""
Test Suite for routescan
========================

Test Structure:
    - test_typeindex.py: module loading, name resolution, annotations, folding
    - test_deterministic.py: docstring, type, status code and builder tables
    - test_definition_scanner.py: schema compilation and enums
    - test_status_err_scanner.py: error reachability and error formatters
    - test_operator_scanner.py: operator compilation
    - test_router_scanner.py: route tree reconstruction
    - test_openapi_generator.py: end-to-end document generation
    - test_config.py / test_cli.py: configuration layering and the CLI
"""
