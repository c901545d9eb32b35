# propsearch/core/geo/__init__.py
