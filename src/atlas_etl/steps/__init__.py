"""
Handlers canônicos do Atlas ETL, um por par (type, subtype):

    - extract             → steps.extract.read.ExtractHandler
    - transform/join      → steps.transform.join.JoinHandler
    - transform/filter    → steps.transform.filter.FilterHandler
    - validate            → steps.validate.columns.ValidateHandler
    - load                → steps.load.write.LoadHandler
"""
