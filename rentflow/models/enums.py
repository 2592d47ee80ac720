from enum import Enum


class ApplicationStatus(str, Enum):
    DRAFT = 'Draft'
    SUBMITTED = 'Submitted'
    UNDER_REVIEW = 'UnderReview'
    ADDITIONAL_INFO_REQUESTED = 'AdditionalInfoRequested'
    APPROVED = 'Approved'
    REJECTED = 'Rejected'
    WITHDRAWN = 'Withdrawn'
    EXPIRED = 'Expired'


class ApplicationStage(str, Enum):
    INITIAL_SUBMISSION = 'InitialSubmission'
    DOCUMENT_VERIFICATION = 'DocumentVerification'
    BACKGROUND_CHECK = 'BackgroundCheck'
    LANDLORD_REVIEW = 'LandlordReview'
    FINAL_APPROVAL = 'FinalApproval'


class EmploymentStatus(str, Enum):
    EMPLOYED = 'Employed'
    SELF_EMPLOYED = 'SelfEmployed'
    UNEMPLOYED = 'Unemployed'
    RETIRED = 'Retired'
    STUDENT = 'Student'


class LeaseStatus(str, Enum):
    DRAFT = 'Draft'
    PENDING_TENANT_SIGNATURE = 'PendingTenantSignature'
    PENDING_LANDLORD_SIGNATURE = 'PendingLandlordSignature'
    ACTIVE = 'Active'
    EXPIRED = 'Expired'
    TERMINATED = 'Terminated'
    RENEWED = 'Renewed'


class LeaseType(str, Enum):
    FIXED = 'Fixed'
    MONTH_TO_MONTH = 'MonthToMonth'
    RENT_TO_OWN = 'RentToOwn'


class TerminationReason(str, Enum):
    END_OF_TERM = 'EndOfTerm'
    EARLY_TERMINATION_BY_TENANT = 'EarlyTerminationByTenant'
    EARLY_TERMINATION_BY_LANDLORD = 'EarlyTerminationByLandlord'
    EVICTION = 'Eviction'
    MUTUAL_AGREEMENT = 'MutualAgreement'
    BREACH = 'Breach'
    OTHER = 'Other'


class SignerRole(str, Enum):
    TENANT = 'tenant'
    LANDLORD = 'landlord'


class PaymentType(str, Enum):
    RENT = 'Rent'
    DEPOSIT = 'Deposit'
    LATE_FEE = 'LateFee'
    OTHER = 'Other'


class PaymentStatus(str, Enum):
    PENDING = 'Pending'
    PARTIALLY_PAID = 'PartiallyPaid'
    PAID = 'Paid'
    OVERDUE = 'Overdue'
    WAIVED = 'Waived'
    REFUNDED = 'Refunded'
    CANCELLED = 'Cancelled'


# Statuses that carry reviewed_at / reviewed_by
APPLICATION_DECIDED_STATUSES = frozenset({
    ApplicationStatus.APPROVED,
    ApplicationStatus.REJECTED,
    ApplicationStatus.ADDITIONAL_INFO_REQUESTED,
})

LEASE_SIGNING_STATUSES = frozenset({
    LeaseStatus.DRAFT,
    LeaseStatus.PENDING_TENANT_SIGNATURE,
    LeaseStatus.PENDING_LANDLORD_SIGNATURE,
})

# Manually set payment statuses dominate the derived ones
PAYMENT_MANUAL_STATUSES = frozenset({
    PaymentStatus.WAIVED,
    PaymentStatus.REFUNDED,
    PaymentStatus.CANCELLED,
})

PAYMENT_OPEN_STATUSES = frozenset({
    PaymentStatus.PENDING,
    PaymentStatus.PARTIALLY_PAID,
    PaymentStatus.OVERDUE,
})
