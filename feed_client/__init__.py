# Client library: everything the browser client does apart from rendering
from .errors import FeedClientError, GatewayError, NotAuthenticatedError, PermissionDeniedError, InvalidInputError
from .gateway import RestGateway
from .table_gateway import TableGateway
from .session import ClientSession
from .feed import FeedAggregator
from .communities import CommunityDirectory, derive_communities
from .presence import PresenceTracker, ScheduledTask
