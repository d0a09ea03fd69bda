"""name_age package initializer.

This package estimates how many people with a given first name are alive
today and how old they are.  Modules include the distribution estimator,
summary statistics, lookup table loading, ONS workbook ingestion and
plotting helpers used by the Shiny application.  See individual module
docstrings for details.
"""
