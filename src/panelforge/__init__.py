"""PanelForge: templated time-series dashboards."""

__version__ = "0.1.0"
