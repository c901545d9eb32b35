# propsearch/core/validate/__init__.py
