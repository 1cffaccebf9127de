import datetime

from bson import ObjectId


def to_jsonable(doc):
    """Convert ObjectIds and datetimes in a Mongo document into JSON-safe strings.

    Motor hands back naive datetimes that are UTC; they are marked as such so
    every timestamp carries an offset.
    """
    if isinstance(doc, list):
        return [to_jsonable(d) for d in doc]
    if isinstance(doc, dict):
        return {k: to_jsonable(v) for k, v in doc.items()}
    if isinstance(doc, ObjectId):
        return str(doc)
    if isinstance(doc, datetime.datetime):
        if doc.tzinfo is None:
            doc = doc.replace(tzinfo=datetime.timezone.utc)
        return doc.isoformat()
    return doc
