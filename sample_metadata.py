"""
Metadata documents shared by the test modules.
"""

V2_METADATA = """<?xml version="1.0" encoding="utf-8"?>
<edmx:Edmx Version="1.0" xmlns:edmx="http://schemas.microsoft.com/ado/2007/06/edmx">
  <edmx:DataServices m:DataServiceVersion="2.0" xmlns:m="http://schemas.microsoft.com/ado/2007/08/dataservices/metadata">
    <Schema Namespace="NS" xmlns="http://schemas.microsoft.com/ado/2008/09/edm"
            xmlns:sap="http://www.sap.com/Protocols/SAPData"
            xmlns:p6="http://schemas.microsoft.com/ado/2009/02/edm/annotation">
      <EntityType Name="Customer" sap:label="Customer Master">
        <Key>
          <PropertyRef Name="CustomerID"/>
        </Key>
        <Property Name="CustomerID" Type="Edm.String" Nullable="false" MaxLength="10" sap:label="Customer"/>
        <Property Name="Name" Type="Edm.String" MaxLength="Max" Unicode="false"/>
        <Property Name="Address" Type="NS.Address"/>
        <NavigationProperty Name="Orders" Relationship="NS.CustomerOrders" FromRole="A" ToRole="B"/>
      </EntityType>
      <EntityType Name="Order">
        <Key>
          <PropertyRef Name="OrderID"/>
        </Key>
        <Property Name="OrderID" Type="Edm.Int32" Nullable="false" p6:StoreGeneratedPattern="Identity"/>
        <Property Name="CustomerRef" Type="Edm.String"/>
        <Property Name="Amount" Type="Edm.Decimal" Precision="15" Scale="2"/>
        <Property Name="Version" Type="Edm.Binary" ConcurrencyMode="Fixed" FixedLength="true"/>
        <NavigationProperty Name="Customer" Relationship="CustomerOrders" FromRole="B" ToRole="A"/>
        <NavigationProperty Name="Broken" Relationship="NS.Missing" FromRole="X" ToRole="Y"/>
      </EntityType>
      <EntityType Name="Employee">
        <Key>
          <PropertyRef Name="ID"/>
        </Key>
        <Property Name="ID" Type="Edm.Int32" Nullable="false"/>
        <NavigationProperty Name="Manager" Relationship="NS.EmployeeManager" FromRole="Subordinate" ToRole="Manager"/>
      </EntityType>
      <EntityType Name="Empty"/>
      <ComplexType Name="Address">
        <Property Name="City" Type="Edm.String"/>
        <Property Name="Street" Type="Edm.String" DefaultValue="Main"/>
      </ComplexType>
      <Association Name="CustomerOrders">
        <End Role="A" Type="NS.Customer" Multiplicity="1"/>
        <End Role="B" Type="NS.Order" Multiplicity="*"/>
        <ReferentialConstraint>
          <Principal Role="A">
            <PropertyRef Name="CustomerID"/>
          </Principal>
          <Dependent Role="B">
            <PropertyRef Name="CustomerRef"/>
          </Dependent>
        </ReferentialConstraint>
      </Association>
      <Association Name="EmployeeManager">
        <End Role="Subordinate" Type="NS.Employee" Multiplicity="*"/>
        <End Role="Manager" Type="NS.Employee" Multiplicity="0..1"/>
      </Association>
    </Schema>
    <Schema Namespace="NS.Container" xmlns="http://schemas.microsoft.com/ado/2008/09/edm">
      <EntityContainer Name="Entities" m:IsDefaultEntityContainer="true">
        <EntitySet Name="Customers" EntityType="NS.Customer"/>
        <EntitySet Name="Orders" EntityType="NS.Order"/>
        <EntitySet Name="Employees" EntityType="NS.Employee"/>
        <AssociationSet Name="CustomerOrdersSet" Association="NS.CustomerOrders">
          <End Role="A" EntitySet="Customers"/>
          <End Role="B" EntitySet="Orders"/>
        </AssociationSet>
      </EntityContainer>
    </Schema>
  </edmx:DataServices>
</edmx:Edmx>
"""

V3_METADATA = """<?xml version="1.0" encoding="utf-8"?>
<edmx:Edmx Version="1.0" xmlns:edmx="http://schemas.microsoft.com/ado/2007/06/edmx">
  <edmx:DataServices m:DataServiceVersion="3.0" m:MaxDataServiceVersion="3.0"
                     xmlns:m="http://schemas.microsoft.com/ado/2007/08/dataservices/metadata">
    <Schema Namespace="ODataDemo" xmlns="http://schemas.microsoft.com/ado/2009/11/edm">
      <EntityType Name="Product">
        <Key>
          <PropertyRef Name="ID"/>
        </Key>
        <Property Name="ID" Type="Edm.Int32" Nullable="false"/>
        <Property Name="Name" Type="Edm.String"/>
      </EntityType>
      <EntityContainer Name="DemoService" m:IsDefaultEntityContainer="true">
        <EntitySet Name="Products" EntityType="ODataDemo.Product"/>
      </EntityContainer>
    </Schema>
  </edmx:DataServices>
</edmx:Edmx>
"""

V4_METADATA = """<?xml version="1.0" encoding="utf-8"?>
<edmx:Edmx Version="4.0" xmlns:edmx="http://docs.oasis-open.org/odata/ns/edmx">
  <edmx:DataServices>
    <Schema Namespace="Trip" xmlns="http://docs.oasis-open.org/odata/ns/edm">
      <EntityType Name="Person">
        <Key>
          <PropertyRef Name="UserName"/>
        </Key>
        <Property Name="UserName" Type="Edm.String" Nullable="false"/>
        <Property Name="HomeAddress" Type="Trip.Location"/>
        <NavigationProperty Name="Friends" Type="Collection(Trip.Person)"/>
        <NavigationProperty Name="Orders" Type="Collection(Trip.Order)"/>
        <NavigationProperty Name="BestFriend" Type="Trip.Person" Nullable="true"/>
        <Annotation Term="Core.Description" String="A traveller"/>
      </EntityType>
      <EntityType Name="Order">
        <Key>
          <PropertyRef Name="ID"/>
        </Key>
        <Property Name="ID" Type="Edm.Int32" Nullable="false"/>
        <Property Name="OwnerName" Type="Edm.String"/>
        <NavigationProperty Name="Owner" Type="Trip.Person" Nullable="false">
          <ReferentialConstraint Property="OwnerName" ReferencedProperty="UserName"/>
        </NavigationProperty>
      </EntityType>
      <ComplexType Name="Location">
        <Property Name="Address" Type="Edm.String"/>
        <Property Name="City" Type="Trip.City"/>
      </ComplexType>
      <ComplexType Name="City">
        <Property Name="Name" Type="Edm.String"/>
        <Property Name="Region" Type="Edm.String"/>
      </ComplexType>
      <EntityContainer Name="Container">
        <EntitySet Name="People" EntityType="Trip.Person"/>
        <EntitySet Name="Orders" EntityType="Trip.Order"/>
      </EntityContainer>
    </Schema>
  </edmx:DataServices>
</edmx:Edmx>
"""

COMPOSITE_V2_METADATA = """<?xml version="1.0" encoding="utf-8"?>
<edmx:Edmx Version="1.0" xmlns:edmx="http://schemas.microsoft.com/ado/2007/06/edmx">
  <edmx:DataServices m:DataServiceVersion="2.0" xmlns:m="http://schemas.microsoft.com/ado/2007/08/dataservices/metadata">
    <Schema Namespace="Sales" xmlns="http://schemas.microsoft.com/ado/2008/09/edm">
      <EntityType Name="Header">
        <Key>
          <PropertyRef Name="CompanyCode"/>
          <PropertyRef Name="DocNo"/>
        </Key>
        <Property Name="CompanyCode" Type="Edm.String" Nullable="false"/>
        <Property Name="DocNo" Type="Edm.Int32" Nullable="false"/>
        <NavigationProperty Name="Items" Relationship="Sales.HeaderItems" FromRole="Parent" ToRole="Child"/>
      </EntityType>
      <EntityType Name="Item">
        <Key>
          <PropertyRef Name="Company"/>
          <PropertyRef Name="Document"/>
          <PropertyRef Name="Line"/>
        </Key>
        <Property Name="Company" Type="Edm.String" Nullable="false"/>
        <Property Name="Document" Type="Edm.Int32" Nullable="false"/>
        <Property Name="Line" Type="Edm.Int32" Nullable="false"/>
        <NavigationProperty Name="Header" Relationship="Sales.HeaderItems" FromRole="Child" ToRole="Parent"/>
      </EntityType>
      <Association Name="HeaderItems">
        <End Role="Parent" Type="Sales.Header" Multiplicity="1"/>
        <End Role="Child" Type="Sales.Item" Multiplicity="*"/>
        <ReferentialConstraint>
          <Principal Role="Parent">
            <PropertyRef Name="CompanyCode"/>
            <PropertyRef Name="DocNo"/>
          </Principal>
          <Dependent Role="Child">
            <PropertyRef Name="Company"/>
            <PropertyRef Name="Document"/>
          </Dependent>
        </ReferentialConstraint>
      </Association>
      <EntityContainer Name="SalesService">
        <EntitySet Name="Headers" EntityType="Sales.Header"/>
        <EntitySet Name="Items" EntityType="Sales.Item"/>
      </EntityContainer>
    </Schema>
  </edmx:DataServices>
</edmx:Edmx>
"""
