"""Export SonarQube project issues to an Excel workbook."""

__version__ = "0.1.0"
