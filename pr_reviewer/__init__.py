# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""PR reviewer assignment service."""
