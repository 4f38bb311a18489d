
class AdmissionsAPIError(Exception): pass

class EntryNotFoundError(AdmissionsAPIError): pass

class LeadNotFoundError(AdmissionsAPIError): pass

class InvalidPositionError(AdmissionsAPIError): pass

class InvalidStatusError(AdmissionsAPIError): pass

class InvalidScoreError(AdmissionsAPIError): pass

class AlreadyQueuedError(AdmissionsAPIError): pass

class TransactionConflictError(AdmissionsAPIError): pass

class UpstreamUnavailableError(AdmissionsAPIError): pass
