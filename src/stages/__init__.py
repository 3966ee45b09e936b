"""
Pipeline stages package.

Each stage module follows a consistent pattern:
- Docstring with Purpose and Input/Output files documented
- Path constants for all file locations
- main() function as the entry point

Stages
------
s00_sample   : Bind labeled points for a specification
s01_crossval : k-fold cross-validation scores
s02_predict  : Full-sample fit and risk surface
"""
