"""Configuration defaults and loading for AppDeck deployers.

Main components:
- defaults: Built-in values for the local deployer
- loader: ``load_deployer_properties`` reading YAML files and ``APPDECK_*``
  environment overrides

The loader is imported from ``appdeck.config.loader`` directly so that the
models package can depend on the defaults without an import cycle.
"""
