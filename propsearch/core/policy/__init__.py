# propsearch/core/policy/__init__.py
