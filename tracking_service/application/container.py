from dependency_injector import containers, providers

from tracking_service.application.access_control import AccessControlGate
from tracking_service.application.notifications import NotificationDispatcher
from tracking_service.application.shipment_lifecycle import ShipmentLifecycleManager
from tracking_service.application.shipment_search import ShipmentSearch
from tracking_service.application.user_admin import UserAdminService
from tracking_service.infrastructure.container import InfrastructureContainer


class ApplicationContainer(containers.DeclarativeContainer):
    config = providers.Configuration()
    infrastructure_container = providers.Container[InfrastructureContainer](
        InfrastructureContainer,
        config=config.infrastructure,
    )

    access_control = providers.Singleton[AccessControlGate](AccessControlGate)

    notification_dispatcher = providers.Singleton[NotificationDispatcher](
        NotificationDispatcher,
        unit_of_work=infrastructure_container.unit_of_work,
        access_control=access_control,
    )
    shipment_lifecycle = providers.Singleton[ShipmentLifecycleManager](
        ShipmentLifecycleManager,
        unit_of_work=infrastructure_container.unit_of_work,
        access_control=access_control,
        notification_dispatcher=notification_dispatcher,
        email_sender=infrastructure_container.email_sender,
    )
    shipment_search = providers.Singleton[ShipmentSearch](
        ShipmentSearch,
        unit_of_work=infrastructure_container.unit_of_work,
        access_control=access_control,
    )
    user_admin = providers.Singleton[UserAdminService](
        UserAdminService,
        unit_of_work=infrastructure_container.unit_of_work,
        access_control=access_control,
        notification_dispatcher=notification_dispatcher,
        email_sender=infrastructure_container.email_sender,
    )
