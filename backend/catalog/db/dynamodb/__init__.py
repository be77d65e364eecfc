"""DynamoDB access for the items and categories tables.

- ``table``: the per-table adapter; boto3 failures leave it as ``StoreError``
- ``pagination``: opaque, encrypted cursors over ``LastEvaluatedKey``
- ``numbers``: Decimal <-> int/float at the store boundary
"""
