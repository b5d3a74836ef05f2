"""Firestore query helpers shared by the repositories.

Filters are passed as ``FieldFilter`` keywords; simple test doubles that only
take positional ``where`` arguments are still accepted.
"""

from google.cloud.firestore_v1.base_query import FieldFilter

DESCENDING = 'DESCENDING'


def apply_where(query, field_path, op_string, value):
    try:
        return query.where(filter=FieldFilter(field_path, op_string, value))
    except TypeError:
        return query.where(field_path, op_string, value)


def where_uid(db, collection_name, uid):
    return apply_where(db.collection(collection_name), 'uid', '==', uid)
