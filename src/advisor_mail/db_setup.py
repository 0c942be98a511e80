import logging

from mongoengine import connect

from advisor_mail.models import Conversation, ConversationMessage


def initialize_db(mongo_uri: str, **connect_kwargs) -> None:
    """
    Connect to MongoDB and ensure collections and indexes exist.

    Args:
        mongo_uri: MongoDB connection string URI
        connect_kwargs: Extra arguments for mongoengine.connect

    Raises:
        Exception: If connection or index creation fails
    """
    try:
        connect(host=mongo_uri, **connect_kwargs)
        logging.debug("Connected to MongoDB.")

        for model in (Conversation, ConversationMessage):
            model.ensure_indexes()
            logging.debug(f"Indexes ensured for {model.__name__}.")
    except Exception as e:
        logging.error(f"Database initialization failed: {str(e)}")
        raise e
