# propsearch/core/rank/__init__.py
